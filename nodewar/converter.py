from nodewar.models.dc_models import ChangeEventModel, EntityModel, OperationModel
from nodewar.models.schema_models import EdgeSchema, NodeSchema


class DataConverter:
    """This class is used to convert committed rows into change events for subscribers."""

    def convert_node_to_upsert_event(self, node: NodeSchema) -> ChangeEventModel:
        """Convert the committed NodeSchema to an upsert event

        Args:
            node (NodeSchema): Node state read back after the commit

        Returns:
            ChangeEventModel: Event carrying every node field
        """
        return ChangeEventModel(
            entity=EntityModel.node,
            op=OperationModel.upsert,
            payload=node.model_dump(mode="json"),
        )

    def convert_edge_to_delete_event(self, edge: EdgeSchema) -> ChangeEventModel:
        """Convert a removed edge to a delete event

        Args:
            edge (EdgeSchema): The edge as it was observed before deletion

        Returns:
            ChangeEventModel: Event carrying the edge key and last owner
        """
        return ChangeEventModel(
            entity=EntityModel.edge,
            op=OperationModel.delete,
            payload=edge.model_dump(mode="json"),
        )

    def convert_event_to_sse(self, event: ChangeEventModel) -> str:
        """Format an event as a Server-Sent Events message, e.g. ``event: node_upsert``."""
        payload = event.model_dump_json()
        return f"event: {event.entity.value}_{event.op.value}\ndata: {payload}\n\n"
