"""
API Routes - HTTP endpoint handlers for the demo application
"""
