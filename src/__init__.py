"""Render Harness shared layer.

Architecture layers (strict one-way dependency):
    render_harness/{harness,capture,view,session,runtime,backends,configs} → src/utils/

Key invariants:
    - YAML-only configs, validated by pydantic
    - All images are (H, W, 4) uint8 RGBA numpy arrays unless explicitly noted
    - Time inside a render session is virtual and only moves on request
"""

__version__ = "0.4.0"
