"""Platform entry points for the tracking programs"""
