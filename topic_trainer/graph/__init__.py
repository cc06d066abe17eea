from topic_trainer.graph.content_graph import ContentGraph, Removal

__all__ = ["ContentGraph", "Removal"]
