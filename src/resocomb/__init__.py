"""Public package exports for the resonance-correlation framework."""

from .analysis import ResonanceCorrelationAnalysis
from .combiner import PairCombiner, share_tracks
from .config import (
    AnalysisConfig,
    McConfig,
    MixingConfig,
    PolarizationConfig,
    analysis_config_from_dict,
    load_analysis_config_json,
)
from .cuts import (
    NO_BIN,
    DaughterCuts,
    EventCuts,
    PairCuts,
    PtBinnedCuts,
    V0Cuts,
    default_d0_cuts,
    find_bin,
)
from .mixing import ColumnBinning, MixingPool, iter_mixed_events
from .models import (
    D0SelectionStatus,
    DaughterTrack,
    EventInput,
    LorentzVector,
    McEvent,
    McParticle,
    PairObservables,
    PairRecord,
    ParticleHypothesis,
    TwoProngCandidate,
    V0Candidate,
)
from .observables import AxisPolicy, ObservableCalculator, RotationSampler, compute_observables
from .pid import (
    make_d0,
    make_k0short,
    make_kaon,
    make_lambda,
    make_pion,
    particle_hypothesis_from_name,
    resonance_pdg_code,
)
from .selection import D0Selector, V0Selector, select_candidate
from .sink import NullSink, ObservableSink, TableSink

__all__ = [
    "ResonanceCorrelationAnalysis",
    "PairCombiner",
    "share_tracks",
    "AnalysisConfig",
    "McConfig",
    "MixingConfig",
    "PolarizationConfig",
    "analysis_config_from_dict",
    "load_analysis_config_json",
    "NO_BIN",
    "EventCuts",
    "V0Cuts",
    "DaughterCuts",
    "PairCuts",
    "PtBinnedCuts",
    "default_d0_cuts",
    "find_bin",
    "ColumnBinning",
    "MixingPool",
    "iter_mixed_events",
    "DaughterTrack",
    "V0Candidate",
    "TwoProngCandidate",
    "EventInput",
    "McParticle",
    "McEvent",
    "LorentzVector",
    "ParticleHypothesis",
    "PairObservables",
    "PairRecord",
    "D0SelectionStatus",
    "AxisPolicy",
    "ObservableCalculator",
    "RotationSampler",
    "compute_observables",
    "make_pion",
    "make_kaon",
    "make_k0short",
    "make_lambda",
    "make_d0",
    "particle_hypothesis_from_name",
    "resonance_pdg_code",
    "V0Selector",
    "D0Selector",
    "select_candidate",
    "ObservableSink",
    "NullSink",
    "TableSink",
]
