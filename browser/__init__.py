"""
Browser automation capability, its Playwright implementation and the site login flow.
"""
