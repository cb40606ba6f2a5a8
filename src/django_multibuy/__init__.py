"""Multi-buy ("buy X, get Y") discounts for Django shops."""
