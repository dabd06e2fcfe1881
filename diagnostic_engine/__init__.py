"""
Diagnostic Assessment Engine

Rule-based clinical classification, composite risk scoring, synthetic ECG
generation and the seven-stage visit workflow.
"""
__version__ = "1.0.0"
