"""
Grid board shared by every game on the arcade page.

A grid is a fixed width x height array of cells. Each cell carries a type
(EMPTY, OBSTACLE or PLAYABLE) and an intensity level 0-4 that doubles as an
obstacle's remaining durability and a background cell's visual weight.

The grid shape never changes after construction. Individual cells are
mutated in place by the engine that owns the grid (blocks broken, walls shot
away), and the renderer reads them between steps.
"""


class CellType:
    """Cell type tags."""

    EMPTY = "EMPTY"
    OBSTACLE = "OBSTACLE"
    PLAYABLE = "PLAYABLE"


MAX_LEVEL = 4


class Cell:
    """A single grid square."""

    __slots__ = ("position", "type", "level")

    def __init__(self, position, cell_type=CellType.PLAYABLE, level=0):
        self.position = (int(position[0]), int(position[1]))
        self.type = cell_type
        self.level = level

    def __repr__(self):
        return "Cell(%r, %s, %d)" % (self.position, self.type, self.level)


class GridConfig:
    """
    Static grid dimensions plus the drawing metrics used by the renderer.

    Args:
        width (int): Number of columns.
        height (int): Number of rows.
        cell_size (int): Pixel size of a drawn cell.
        gap (int): Pixel gap between drawn cells.
    """

    __slots__ = ("width", "height", "cell_size", "gap")

    def __init__(self, width, height, cell_size=16, gap=2):
        self.width = int(width)
        self.height = int(height)
        self.cell_size = int(cell_size)
        self.gap = int(gap)


class Grid:
    """
    Fixed-shape 2D cell array.

    Cells are stored row-major as ``cells[y][x]``. Lookups outside the grid
    return ``None`` and mutations outside the grid are ignored, so callers
    never need to bounds-check before touching a cell.
    """

    def __init__(self, config, cells):
        """
        Args:
            config (GridConfig): Grid dimensions.
            cells (list[list[Cell]]): Row-major cells, ``height`` rows of
                ``width`` cells each.
        """
        if len(cells) != config.height or any(len(row) != config.width for row in cells):
            raise ValueError("cells do not match grid config dimensions")
        self.config = config
        self._cells = cells

    @classmethod
    def filled(cls, width, height, cell_type=CellType.PLAYABLE, level=0, cell_size=16, gap=2):
        """Build a grid where every cell has the same type and level."""
        config = GridConfig(width, height, cell_size, gap)
        cells = [
            [Cell((x, y), cell_type, level) for x in range(width)]
            for y in range(height)
        ]
        return cls(config, cells)

    @property
    def width(self) -> int:
        return self.config.width

    @property
    def height(self) -> int:
        return self.config.height

    def is_valid_position(self, pos) -> bool:
        x, y = pos
        return 0 <= x < self.config.width and 0 <= y < self.config.height

    def get_cell_at(self, pos):
        """Return the cell at ``pos`` or ``None`` when out of range."""
        if not self.is_valid_position(pos):
            return None
        return self._cells[pos[1]][pos[0]]

    def get_available_cells(self, predicate=None):
        """
        Return all cells in row-major order, optionally filtered.

        Args:
            predicate (callable, optional): ``predicate(cell) -> bool``.

        Returns:
            list[Cell]: Matching cells.
        """
        found = []
        for row in self._cells:
            for cell in row:
                if predicate is None or predicate(cell):
                    found.append(cell)
        return found

    def all_cells(self):
        """Return the row-major cell rows (shared, not copied)."""
        return self._cells

    def update_cell_type(self, pos, cell_type):
        cell = self.get_cell_at(pos)
        if cell is not None:
            cell.type = cell_type

    def update_cell_level(self, pos, level):
        cell = self.get_cell_at(pos)
        if cell is not None:
            cell.level = max(0, min(MAX_LEVEL, int(level)))
