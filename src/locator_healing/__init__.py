"""
Locator self-healing for browser test automation.

Given a failed element interaction, produces a ranked and explained list of
alternative locators and learns from the outcome of each attempt.
"""

__version__ = "0.1.0"
