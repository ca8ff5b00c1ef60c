"""
ShiftCraft relay service.

A small FastAPI application that forwards chat-completion requests to the
Anthropic Messages API with the credential kept server side, and exposes a
key-value facade over a blob store for application state.
"""
