from pydantic import BaseModel
from typing import Optional, List

# Models
from models.flow_data import FlowData
from models.flow_version_data import FlowVersionData, FlowNode, FlowEdge


class FlowDefinition(BaseModel):
    """
    A flow bound to one resolved version, ready for execution.
    """
    flow: FlowData
    version: FlowVersionData

    @property
    def nodes(self) -> List[FlowNode]:
        return self.version.nodes

    @property
    def edges(self) -> List[FlowEdge]:
        return self.version.edges

    def get_node(self, node_id: Optional[str]) -> Optional[FlowNode]:
        if not node_id:
            return None
        for node in self.version.nodes:
            if node.id == node_id:
                return node
        return None

    def get_start_node(self) -> Optional[FlowNode]:
        for node in self.version.nodes:
            if node.type == "start":
                return node
        return self.version.nodes[0] if self.version.nodes else None

    def get_outgoing_edge(self, node_id: str, source_handle: Optional[str] = None) -> Optional[FlowEdge]:
        """
        Default transition out of a node. A matching handle wins over the first edge.
        """
        outgoing = [edge for edge in self.version.edges if edge.source == node_id]
        if source_handle:
            for edge in outgoing:
                if edge.sourceHandle == source_handle:
                    return edge
        return outgoing[0] if outgoing else None
