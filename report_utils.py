"""
Ground truth bookkeeping for a gen_train run.
"""

import numpy as np
import pandas as pd


def build_report(opts, results, recruited, dismissed, templates_idx, amplitudes, events=None):
    """
    Collect what a spike sorter needs to be scored against.

    Parameters
    ----------
    opts : dict
        Merged options, with 'SpikeRate' already expanded per axon.
    results : list of AxonResult
        One per axon, in axon order.
    recruited, dismissed : np.ndarray
        Indices of the axons whose window was moved.
    templates_idx : np.ndarray
        Template column assigned to each axon.
    amplitudes : np.ndarray
        Amplitude scale of each axon.
    events : dict or None
        Event bookkeeping from the driver: 'inflamed', 'inf_time', 'amped',
        'amp_time' and 'disturbed'.

    Returns
    -------
    dict
    """
    report = {
        'opts': opts,
        'recruit': np.array([res.notes['start'] for res in results], dtype=int),
        'dismiss': np.array([res.notes['end'] for res in results], dtype=int),
        'recruited_axons': np.asarray(recruited, dtype=int),
        'dismissed_axons': np.asarray(dismissed, dtype=int),
        'templates': np.asarray(templates_idx, dtype=int),
        'amplitudes': np.asarray(amplitudes, dtype=float),
        'locs': [res.sptimes for res in results],
        'spks': np.column_stack([res.spks for res in results]),
    }

    if events is not None:
        report.update(events)
        report['amp_shift'] = np.array(
            [np.nan if res.notes['amp_shift'] is None else res.notes['amp_shift'] for res in results]
        )

    return report


def axon_table(report):
    """One row per axon with its ground truth parameters and spike count."""
    n_axons = len(report['locs'])
    inflamed = np.isin(np.arange(n_axons), report.get('inflamed', []))
    amped = np.isin(np.arange(n_axons), report.get('amped', []))

    return pd.DataFrame({
        'axon': np.arange(n_axons),
        'template': report['templates'],
        'rate': np.asarray(report['opts']['SpikeRate'], dtype=float),
        'amplitude': report['amplitudes'],
        'start': report['recruit'],
        'end': report['dismiss'],
        'n_spikes': [locs.size for locs in report['locs']],
        'inflamed': inflamed,
        'amped': amped,
    })
