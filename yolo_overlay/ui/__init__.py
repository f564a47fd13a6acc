"""
UI package: the Tkinter player window and video display widget.
"""
