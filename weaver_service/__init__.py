"""
Image Weaver microservice package.

Exposes reusable primitives for validating inputs, building the instruction
prompt, calling the generative model, and serving the FastAPI application.
"""
