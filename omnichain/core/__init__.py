"""Composition, delegation and execution core"""
