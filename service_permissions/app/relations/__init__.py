from .resolver import RelationshipResolver

__all__ = ["RelationshipResolver"]
