# crave/__init__.py
