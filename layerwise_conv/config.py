"""
Configuration Constants for Layer-wise Convolutional Feature Learning
=====================================================================
Defaults are sized for MNIST (28x28 greyscale) and a 3-layer stack that
shrinks the image down to a 4x4 output grid.
"""

# =============================================================================
# NETWORK ARCHITECTURE DEFAULTS
# =============================================================================

DEFAULT_LAYERS = 3            # Number of convolution layers
IMAGE_WIDTH = 28              # Input image width
IMAGE_HEIGHT = 28             # Input image height
IMAGE_DEPTH = 1               # Colour channels of the input image
DEFAULT_FEATURES = 8          # Features learned per layer (uniform)
DEFAULT_FEATURE_WIDTH = 7     # Feature patch width in the first layer
FINAL_IMAGE_WIDTH = 4         # Width and height of the final output grid
DEFAULT_MATCH_THRESHOLD = 0.5 # Per-layer accumulated error needed to advance

MIN_FEATURE_WIDTH = 3         # Feature patches never shrink below 3x3
DEFAULT_LEARNING_RATE = 0.1   # Step size used by the feature learner

# =============================================================================
# TRAINING PARAMETERS
# =============================================================================

SAMPLES_PER_STEP = 4          # Learner calls per training step
EPOCHS = 3                    # Passes over the training images
TRAINING_SAMPLES = 2000       # Number of training images to use
RANDOM_SEED = 0               # Seed for feature initialisation and sampling
PROGRESS_EVERY = 100          # Print a progress line every N images

# Returned by a training step when the per-feature scratch buffer
# could not be allocated
SCRATCH_ALLOCATION_FAILED = -1.0

# =============================================================================
# ERROR HISTORY
# =============================================================================

HISTORY_SIZE = 1024           # Stored points before the history is compressed
HISTORY_STEP = 1              # Initial number of training steps per point

# =============================================================================
# PERSISTENCE
# =============================================================================

FORMAT_VERSION = 1            # Bumped whenever the .npz layout changes

# =============================================================================
# PATHS
# =============================================================================

MNIST_DATA_DIR = "mnist/mnist"
EXPERIMENT_BASE_DIR = "experiments"

# =============================================================================
# VISUALIZATION
# =============================================================================

PLOT_WIDTH = 640              # History plot size in pixels
PLOT_HEIGHT = 480
FEATURE_SCALE = 8             # Upscale factor for saved feature images
