# overlay/__init__.py
"""
Overlay layer: what gets drawn on top of the scene.

- markers: Marker record, MarkerRegistry (create / register)
- decorator: MarkerDecorator (per-frame draw) and OverlayHandle
- renderer: matplotlib render context
- tiles: background map provider / imagery layer URLs
"""
__all__ = ["markers", "decorator", "renderer", "tiles"]
