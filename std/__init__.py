"""Built-in function libraries installed into every registry."""
