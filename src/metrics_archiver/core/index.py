"""
Cluster/node index built while metrics are staged.

Container series tie an instance id to a cluster, compute series tie the
same instance id to an instance name and its metric files. Both kinds feed
one shared NodeStageList so neither has to be processed first; `merge` then
moves every node into the cluster that claimed it.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..errors import ConsistencyError
from ..logging import get_logger
from .records import (
    CLUSTER_NAME_LABEL,
    INSTANCE_ID_LABEL,
    INSTANCE_NAME_LABEL,
    MetricKind,
    MetricRecord,
)

logger = get_logger("metrics_archiver.core.index")


@dataclass
class NodeInfo:
    instance_name: str = ""
    cluster_name: str = ""
    node_files: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "instanceName": self.instance_name,
            "clusterName": self.cluster_name,
            "nodeFiles": list(self.node_files),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodeInfo":
        return cls(
            instance_name=data.get("instanceName", ""),
            cluster_name=data.get("clusterName", ""),
            node_files=list(data.get("nodeFiles", [])),
        )


@dataclass
class ClusterMapping:
    container_files: List[str] = field(default_factory=list)
    node_infos: Dict[str, NodeInfo] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "containerFiles": list(self.container_files),
            "nodeInfos": {
                instance_id: node.to_dict() for instance_id, node in self.node_infos.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClusterMapping":
        return cls(
            container_files=list(data.get("containerFiles", [])),
            node_infos={
                instance_id: NodeInfo.from_dict(node)
                for instance_id, node in data.get("nodeInfos", {}).items()
            },
        )


@dataclass
class Index:
    clusters: Dict[str, ClusterMapping] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "clusters": {name: cluster.to_dict() for name, cluster in self.clusters.items()}
        }

    def to_json(self) -> bytes:
        return json.dumps(self.to_dict(), sort_keys=True).encode("utf-8")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Index":
        return cls(
            clusters={
                name: ClusterMapping.from_dict(cluster)
                for name, cluster in data.get("clusters", {}).items()
            }
        )

    @classmethod
    def from_json(cls, payload: bytes) -> "Index":
        return cls.from_dict(json.loads(payload))


@dataclass
class NodeStageList:
    nodes: Dict[str, NodeInfo] = field(default_factory=dict)

    def node(self, instance_id: str) -> NodeInfo:
        """Return the staged node for an instance id, creating it on first sight."""
        node = self.nodes.get(instance_id)
        if node is None:
            node = NodeInfo()
            self.nodes[instance_id] = node
        return node


class IndexBuilder:
    """Correlates compute and container records into an Index."""

    def __init__(self, index: Optional[Index] = None, stage_list: Optional[NodeStageList] = None):
        self.index = index or Index()
        self.stage_list = stage_list or NodeStageList()
        self.skipped_nodes: List[str] = []
        self._merged = False

    def observe(self, kind: MetricKind, record: MetricRecord, file_name: str) -> None:
        if kind is MetricKind.CONTAINER:
            self.observe_container(record, file_name)
        else:
            self.observe_compute(record, file_name)

    def observe_container(self, record: MetricRecord, file_name: str) -> None:
        self._ensure_open()
        cluster_name = record.resource_label(CLUSTER_NAME_LABEL)
        instance_id = record.resource_label(INSTANCE_ID_LABEL)

        cluster = self.index.clusters.get(cluster_name)
        if cluster is None:
            cluster = ClusterMapping()
            self.index.clusters[cluster_name] = cluster
            logger.debug("Cluster discovered", cluster_name=cluster_name)
        cluster.container_files.append(file_name)

        self.stage_list.node(instance_id).cluster_name = cluster_name

    def observe_compute(self, record: MetricRecord, file_name: str) -> None:
        self._ensure_open()
        instance_name = record.metric_label(INSTANCE_NAME_LABEL)
        instance_id = record.resource_label(INSTANCE_ID_LABEL)

        node = self.stage_list.node(instance_id)
        node.instance_name = instance_name
        node.node_files.append(file_name)

    def merge(self) -> Index:
        """Attach every staged node to its cluster. Runs once per export."""
        self._ensure_open()
        self._merged = True

        for instance_id, node in self.stage_list.nodes.items():
            if not node.cluster_name:
                logger.warning(
                    "Node found not belonging to any cluster",
                    instance_id=instance_id,
                    instance_name=node.instance_name,
                )
                self.skipped_nodes.append(instance_id)
                continue

            cluster = self.index.clusters.get(node.cluster_name)
            if cluster is None:
                raise ConsistencyError(
                    f"Expected to find cluster {node.cluster_name} in index "
                    f"for instance {instance_id}"
                )
            cluster.node_infos[instance_id] = node

        logger.info(
            "Index merged",
            clusters=len(self.index.clusters),
            nodes=len(self.stage_list.nodes) - len(self.skipped_nodes),
            skipped_nodes=len(self.skipped_nodes),
        )
        return self.index

    def _ensure_open(self) -> None:
        if self._merged:
            raise RuntimeError("Index has already been merged")
