from dataclasses import dataclass, field

BOUNDARY_EPSILON = 0.05  # query slides this far before their end

OUTPUT_FORMATS = ("svg", "svgz")


@dataclass(frozen=True)
class ShapeInterval:
    begin: float  # seconds
    end: float
    id: str       # stable per-shape-group token, shared by every revision
    payload: str  # namespace-free <g> markup
    shape: str = ""  # composite identifier as recorded, e.g. "text-3-7"

    @property
    def is_text(self) -> bool:
        return "text" in self.shape

    @property
    def is_poll(self) -> bool:
        return "poll" in self.shape


@dataclass(frozen=True)
class SlideInterval:
    resource: str  # absolute path of the background image
    begin: float
    end: float
    width: float
    height: float

    @property
    def duration(self) -> float:
        return self.end - self.begin


@dataclass(frozen=True)
class ResolvedFrame:
    index: int
    slide: SlideInterval
    shapes: tuple[ShapeInterval, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ExportOptions:
    remove_redundant_shapes: bool = False  # keep only the last state of adjacent same-id shapes
    output_format: str = "svg"             # "svg" | "svgz" for the intermediate frames
    boundary_epsilon: float = BOUNDARY_EPSILON
    jobs: int = 1                          # worker threads for the per-slide loop
    rasterizer_timeout: float = 120.0      # seconds per rsvg-convert call

    def __post_init__(self) -> None:
        if self.output_format not in OUTPUT_FORMATS:
            raise ValueError(f"Unknown output format: {self.output_format}")
        if self.jobs < 1:
            raise ValueError(f"jobs must be at least 1, got {self.jobs}")
        if self.boundary_epsilon < 0:
            raise ValueError(f"boundary_epsilon must not be negative, got {self.boundary_epsilon}")

    @property
    def frame_extension(self) -> str:
        return self.output_format
