"""Core data models shared by the scanner, analyzers, graph builder and workflow."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, fields
from typing import Dict, List, Literal, Mapping, Optional, Union


class AnalysisDepth(str, enum.Enum):
    SHALLOW = "shallow"
    STANDARD = "standard"
    DEEP = "deep"

    @property
    def max_depth(self) -> int:
        return {"shallow": 2, "standard": 4, "deep": 6}[self.value]


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FileRecord:
    path: str
    relative_path: str
    language: str
    size: int
    modified: float
    byte_length: int
    line_count: int


@dataclass
class FileInventory:
    root: str
    files: List[FileRecord] = field(default_factory=list)
    directories: List[str] = field(default_factory=list)
    root_files: List[str] = field(default_factory=list)
    unreadable: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Structural records (tagged union keyed by ``kind``)
# ---------------------------------------------------------------------------

@dataclass
class ParameterDescriptor:
    name: str
    annotation: str = ""
    optional: bool = False


@dataclass
class FunctionDescriptor:
    name: str
    parameters: List[ParameterDescriptor] = field(default_factory=list)
    return_type: str = ""
    is_exported: bool = False
    is_async: bool = False
    complexity: int = 1
    line: int = 0


@dataclass
class ClassDescriptor:
    name: str
    bases: List[str] = field(default_factory=list)
    methods: List[FunctionDescriptor] = field(default_factory=list)
    is_exported: bool = False
    line: int = 0


@dataclass
class InterfaceDescriptor:
    name: str
    members: List[str] = field(default_factory=list)
    is_exported: bool = False
    line: int = 0


@dataclass
class ImportDescriptor:
    """An import statement.

    ``module`` keeps the source spelling: a dotted path for Python (relative
    ones carry leading dots) or the quoted specifier for TS/JS.
    """

    module: str
    names: List[str] = field(default_factory=list)
    is_external: bool = True
    line: int = 0


@dataclass
class ExportDescriptor:
    name: str
    kind: str = "symbol"
    is_default: bool = False


@dataclass
class ParseErrorInfo:
    message: str
    line: int = 0
    column: int = 0
    severity: str = "error"


@dataclass
class ParsedStructure:
    file_path: str
    language: str
    functions: List[FunctionDescriptor] = field(default_factory=list)
    classes: List[ClassDescriptor] = field(default_factory=list)
    interfaces: List[InterfaceDescriptor] = field(default_factory=list)
    imports: List[ImportDescriptor] = field(default_factory=list)
    exports: List[ExportDescriptor] = field(default_factory=list)
    complexity: int = 1
    kind: Literal["structured"] = "structured"
    success: bool = True


@dataclass
class ShallowStructure:
    """Minimal record for languages without a structured analyzer yet."""

    file_path: str
    language: str
    length: int = 0
    kind: Literal["shallow"] = "shallow"
    success: bool = True


@dataclass
class FailedStructure:
    file_path: str
    language: str
    errors: List[ParseErrorInfo] = field(default_factory=list)
    kind: Literal["failed"] = "failed"
    success: bool = False


StructuralRecord = Union[ParsedStructure, ShallowStructure, FailedStructure]


# ---------------------------------------------------------------------------
# Relationship graph
# ---------------------------------------------------------------------------

@dataclass
class DependencyEdge:
    target: str
    import_type: str
    strength: float


@dataclass
class DependentEdge:
    source: str
    import_type: str
    strength: float


@dataclass
class DependencyNode:
    file_path: str
    imports: List[ImportDescriptor] = field(default_factory=list)
    exports: List[ExportDescriptor] = field(default_factory=list)
    dependencies: List[DependencyEdge] = field(default_factory=list)
    dependents: List[DependentEdge] = field(default_factory=list)
    importance: int = 0
    cycle_risk: float = 0.0


@dataclass
class RiskFactor:
    type: str
    description: str
    probability: str = "medium"
    impact: str = "medium"


@dataclass
class CriticalPath:
    files: List[str]
    risk_factors: List[RiskFactor] = field(default_factory=list)
    risk_score: float = 0.0
    mitigation: List[str] = field(default_factory=list)


@dataclass
class ComponentCluster:
    files: List[str]
    cohesion: float
    purpose: str
    refactoring_hint: str = ""


@dataclass
class ArchitecturalLayer:
    name: str
    files: List[str] = field(default_factory=list)


@dataclass
class RelationshipGraph:
    nodes: Dict[str, DependencyNode] = field(default_factory=dict)
    strongly_connected_components: List[ComponentCluster] = field(default_factory=list)
    cycles: List[List[str]] = field(default_factory=list)
    critical_paths: List[CriticalPath] = field(default_factory=list)
    layers: List[ArchitecturalLayer] = field(default_factory=list)

    @property
    def edge_count(self) -> int:
        return sum(len(n.dependencies) for n in self.nodes.values())

    def is_empty(self) -> bool:
        return not self.nodes


# ---------------------------------------------------------------------------
# Project profile and snapshot
# ---------------------------------------------------------------------------

@dataclass
class ProjectProfile:
    name: str
    project_type: str = "unknown"
    description: str = ""
    version: str = ""
    frameworks: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    directories: List[str] = field(default_factory=list)
    root_files: List[str] = field(default_factory=list)
    entry_points: List[str] = field(default_factory=list)
    config_files: List[str] = field(default_factory=list)
    architecture_patterns: List[str] = field(default_factory=list)
    key_patterns: List[str] = field(default_factory=list)
    complexity: str = "Low"


@dataclass
class IntelligenceStats:
    total_files: int = 0
    parsed_files: int = 0
    failed_files: int = 0
    completeness: float = 0.0
    complexity_bucket: str = "Simple"
    languages: Dict[str, int] = field(default_factory=dict)
    total_functions: int = 0
    total_classes: int = 0
    total_interfaces: int = 0


@dataclass
class AnalysisSnapshot:
    root_path: str
    depth: AnalysisDepth
    profile: ProjectProfile
    files: List[FileRecord]
    structures: List[StructuralRecord]
    graph: RelationshipGraph
    stats: IntelligenceStats
    timestamp: float


# ---------------------------------------------------------------------------
# Two-phase workflow payloads
# ---------------------------------------------------------------------------

SLOT_WIRE_NAMES: Dict[str, str] = {
    "project_brief": "brief",
    "product_context": "product-context",
    "active_context": "active-context",
    "system_patterns": "system-patterns",
    "tech_context": "tech-context",
    "progress": "progress",
}

_CAMEL_NAMES = {
    "projectBrief": "project_brief",
    "productContext": "product_context",
    "activeContext": "active_context",
    "systemPatterns": "system_patterns",
    "techContext": "tech_context",
}


def slot_name(key: str) -> Optional[str]:
    """Normalize a snake, kebab, wire or camelCase key to its slot attribute."""
    if key in SLOT_WIRE_NAMES:
        return key
    if key in _CAMEL_NAMES:
        return _CAMEL_NAMES[key]
    for attr, wire in SLOT_WIRE_NAMES.items():
        if key == wire:
            return attr
    snake = key.replace("-", "_")
    return snake if snake in SLOT_WIRE_NAMES else None


@dataclass
class _SlotSet:
    project_brief: str = ""
    product_context: str = ""
    active_context: str = ""
    system_patterns: str = ""
    tech_context: str = ""
    progress: str = ""

    def items(self) -> List[tuple]:
        return [(f.name, getattr(self, f.name)) for f in fields(self)]

    def to_wire(self) -> Dict[str, str]:
        return {SLOT_WIRE_NAMES[name]: value for name, value in self.items()}

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]):
        values: Dict[str, str] = {}
        for key, value in data.items():
            name = slot_name(str(key))
            if name is not None and value is not None:
                values[name] = str(value)
        return cls(**values)


@dataclass
class PromptSet(_SlotSet):
    """The six prompts produced by Phase 1."""


@dataclass
class ResponseSet(_SlotSet):
    """The caller-supplied answer for each prompt slot."""


@dataclass
class QualityMetrics:
    specificity: float
    professional_tone: float
    business_context: float
    technical_accuracy: float
    narrative_coherence: float
    overall: float


@dataclass
class EnhancementRequest:
    dimension: str
    score: float
    threshold: float
    message: str


@dataclass
class Phase1Result:
    analysis_id: str
    prompts: PromptSet
    instructions: str
    files_analyzed: int
    key_patterns: List[str]
    estimated_tokens: int
    phase: Literal["prompts-ready"] = "prompts-ready"


@dataclass
class Phase2Result:
    analysis_id: str
    phase: Literal["complete", "needs-enhancement"]
    quality: QualityMetrics
    files: List[str] = field(default_factory=list)
    output_dir: str = ""
    enhancement_requests: List[EnhancementRequest] = field(default_factory=list)
