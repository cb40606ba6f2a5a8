"""Multi-buy discount evaluation services.

The ``items``, ``rules`` and ``evaluator`` modules are plain Python and never
touch the database; ``applicator`` and ``discount_service`` bridge them to the
Django models and settings.
"""
