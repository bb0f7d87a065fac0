# geo/__init__.py
__all__ = ["projection", "transform"]
