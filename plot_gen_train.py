"""
Quick look at a simulated recording: summed signal on top, spike raster below.
"""

import numpy as np
import matplotlib.pyplot as plt


def plot_simulation(v, vv, report, fs, max_axons=10):
    """
    Plot the recording and the spike times of the first `max_axons` axons.

    Returns the matplotlib Figure; the caller decides whether to show or save it.
    """
    duration, n_axons = vv.shape
    t = np.arange(duration) / fs
    n_show = min(max_axons, n_axons)

    fig, axes = plt.subplots(2, 1, figsize=(12, 6), sharex=True, constrained_layout=True)

    axes[0].plot(t, v, color='k', lw=0.6)
    axes[0].set_ylabel('Amplitude')
    axes[0].set_title(f'Simulated recording ({n_axons} axons)')

    for i in range(n_show):
        sptimes = report['locs'][i] / fs
        axes[1].vlines(sptimes, i + 0.6, i + 1.4, color=f'C{i % 10}', lw=0.8)
        # active window
        axes[1].hlines(i + 1, report['recruit'][i] / fs, report['dismiss'][i] / fs,
                       color='gray', lw=0.4, ls=':')
    axes[1].set_ylim(0.4, n_show + 0.6)
    axes[1].set_yticks(np.arange(1, n_show + 1))
    axes[1].set_yticklabels(np.arange(n_show))
    axes[1].set_ylabel('Axon')
    axes[1].set_xlabel('Time (s)')

    return fig
