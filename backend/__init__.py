"""HTTP service for the credential registry"""
