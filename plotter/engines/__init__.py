"""
Engines: Script (Python, RestrictedPython) and the render orchestrator
(plotter.engines.orchestrator).
"""
