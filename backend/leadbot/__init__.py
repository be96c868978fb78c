"""
LeadBot - lead-intake chatbot backend
"""
