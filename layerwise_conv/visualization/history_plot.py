import os

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from ..config import PLOT_WIDTH, PLOT_HEIGHT


def plot_history(history, filename, title, img_width=PLOT_WIDTH, img_height=PLOT_HEIGHT):
    """
    Save the training error history as a PNG line chart.

    Args:
        history: ErrorHistory (network.history)
        filename: Output PNG path
        title: Chart title
        img_width, img_height: Image size in pixels

    Returns:
        True if the chart was written. Failures are reported and return
        False; the network itself is never touched.
    """
    steps, values = history.as_series()
    max_value = max(0.01, float(values.max())) if len(values) else 0.01

    dpi = 100
    fig, ax = plt.subplots(figsize=(img_width / dpi, img_height / dpi), dpi=dpi)
    try:
        ax.plot(steps, values, linewidth=1)
        ax.set_title(title)
        ax.set_xlim(0, max(1, history.index * history.step))
        ax.set_ylim(0, max_value * 1.02)
        ax.set_xlabel("Time Step")
        ax.set_ylabel("Training Error")
        ax.grid(True, alpha=0.3)
        fig.tight_layout()

        out_dir = os.path.dirname(filename)
        if out_dir:
            os.makedirs(out_dir, exist_ok=True)
        fig.savefig(filename, dpi=dpi)
    except OSError as e:
        print(f"  Note: Could not save history plot ({e})")
        return False
    finally:
        plt.close(fig)
    return True
