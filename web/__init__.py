"""
Browser terminal front-end for the sandbox
"""
