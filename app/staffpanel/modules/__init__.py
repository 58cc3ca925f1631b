"""
Feature modules live under this package.

Each module is a sub-package with a ``config`` module (``CONFIG`` dict describing
permissions, navigation, panel items and breadcrumbs) and an ``admin`` module
exposing the blueprint ``bp``. The registry discovers them; nothing else needs
to import them directly.
"""
