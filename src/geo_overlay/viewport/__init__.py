# viewport/__init__.py
__all__ = ["base", "click", "orchestrator", "plot_viewport", "ready_gate"]
