"""Adapters implementing the todosync collaborator ports."""
