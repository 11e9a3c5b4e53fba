from dataclasses import dataclass


@dataclass
class Category:
    id: int
    name: str
    icon: str = "dots-horizontal"
    color: str = "#B5B5B5"
    budget: float = 0.0     # monthly default, 0 = no budget
