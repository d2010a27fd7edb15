import torch as t

# Scalar index aliases. Python ints are unbounded, so these only document
# which of the three index families a value belongs to.
GlobalIndex = int
FiberIndex = int
DimensionIndex = int

# Default tensor dtypes for the three index families in the batched API.
GLOBAL_INDEX_DTYPE = t.int64
FIBER_INDEX_DTYPE = t.int32
DIMENSION_INDEX_DTYPE = t.int16
