"""
Curriculum Suite Service: curriculum analysis, instructional suite
generation and export.
"""
