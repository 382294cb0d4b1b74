"""
Random-walk Metropolis-Hastings sampler.

Given a log-posterior function, the sampler builds a Markov chain whose
stationary distribution is the posterior:

1. Propose β' = β + ε with ε_i ~ N(0, proposal_sd_i)
2. Compute α = exp(log p(β') - log p(β))
3. Draw u ~ U(0, 1) and move to β' iff u < α
4. Record the current β, moved or not

The proposal is symmetric, so no proposal-density correction enters α.
Rejected proposals repeat the previous draw in the chain.

The sampler keeps only the current state (β and its cached log-posterior)
and an append-only record of draws; it always runs the requested number of
iterations. Burn-in removal and posterior summaries are done on the returned
``MCMCChain``.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..config import ARVIZ_AVAILABLE, az, get_settings
from ..exceptions import ConfigurationError
from ..utils import SeedLike, as_generator, run_parallel, spawn_generators

logger = logging.getLogger(__name__)


# =============================================================================
# CHAIN
# =============================================================================

@dataclass(frozen=True)
class MCMCChain:
    """
    Draws produced by one sampler run.

    Attributes:
        samples: (n_draws, n_params) recorded states
        accepted: (n_draws,) whether each iteration's proposal was accepted
        log_posterior: (n_draws,) log-posterior of each recorded state
        param_names: Coefficient names, aligned with the columns of samples
        burn_in: Number of leading iterations already removed
    """
    samples: np.ndarray
    accepted: np.ndarray
    log_posterior: np.ndarray
    param_names: tuple
    burn_in: int = 0

    def __len__(self) -> int:
        return self.samples.shape[0]

    @property
    def n_params(self) -> int:
        return self.samples.shape[1]

    @property
    def acceptance_rate(self) -> float:
        """Accepted proposals divided by iterations."""
        if len(self) == 0:
            return float("nan")
        return float(self.accepted.mean())

    def discard(self, burn_in: Optional[int] = None) -> "MCMCChain":
        """Return a new chain without the first ``burn_in`` draws."""
        if burn_in is None:
            burn_in = get_settings().mcmc_burn_in
        if burn_in < 0:
            raise ConfigurationError(f"burn_in must be >= 0, got {burn_in}")
        if burn_in >= len(self):
            raise ConfigurationError(
                f"burn_in ({burn_in}) leaves no draws from a chain of length {len(self)}"
            )
        return MCMCChain(
            samples=self.samples[burn_in:],
            accepted=self.accepted[burn_in:],
            log_posterior=self.log_posterior[burn_in:],
            param_names=self.param_names,
            burn_in=self.burn_in + burn_in,
        )

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.samples, columns=list(self.param_names))

    def summary(self, burn_in: Optional[int] = None) -> pd.DataFrame:
        """
        Posterior mean, standard deviation and 95% credible interval.

        Args:
            burn_in: Draws to drop first (default: ``Settings.mcmc_burn_in``)

        Returns:
            DataFrame indexed by parameter with columns mean, sd, q2.5, q97.5
        """
        draws = self.discard(burn_in).to_frame()
        summary = pd.DataFrame({
            'mean': draws.mean(),
            'sd': draws.std(ddof=1),
            'q2.5': draws.quantile(0.025),
            'q97.5': draws.quantile(0.975),
        })
        summary.index.name = 'parameter'
        return summary


# =============================================================================
# SAMPLER
# =============================================================================

def _read_only(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


def metropolis_hastings(log_posterior: Callable[[np.ndarray], float],
                        initial, proposal_sd, n_iter: Optional[int] = None,
                        seed: SeedLike = None,
                        param_names: Optional[Sequence[str]] = None,
                        progress_callback: Optional[Callable] = None,
                        progress_every: int = 1000) -> MCMCChain:
    """
    Run a random-walk Metropolis-Hastings chain.

    A proposal that equals the current state (for instance when every
    proposal sd is 0) is recorded as not accepted without evaluating the
    posterior, so such a chain stays at ``initial`` with acceptance rate 0.

    Args:
        log_posterior: Function mapping a (n_params,) vector to a log density
        initial: (n_params,) starting point; its log-posterior must be finite
        proposal_sd: (n_params,) non-negative random-walk step sizes
        n_iter: Number of iterations, i.e. chain length (default:
                ``Settings.mcmc_n_iter``)
        seed: Seed or Generator driving proposals and acceptance draws
        param_names: Optional coefficient names for summaries
        progress_callback: Optional callable invoked every ``progress_every``
                           iterations with ``iteration``, ``n_iter``,
                           ``acceptance_rate`` and ``log_posterior`` keywords
        progress_every: Reporting interval for ``progress_callback``

    Returns:
        MCMCChain of length ``n_iter``

    Raises:
        ConfigurationError: On dimension mismatch, negative step sizes,
            ``n_iter < 1``, or a non-finite log-posterior at ``initial``.
            All checks run before the first iteration.
    """
    initial = np.asarray(initial, dtype=float)
    proposal_sd = np.asarray(proposal_sd, dtype=float)
    if n_iter is None:
        n_iter = get_settings().mcmc_n_iter

    if initial.ndim != 1:
        raise ConfigurationError(f"initial must be a 1D vector, got shape {initial.shape}")
    if proposal_sd.shape != initial.shape:
        raise ConfigurationError(
            f"proposal_sd has shape {proposal_sd.shape}, initial has shape {initial.shape}"
        )
    if np.any(proposal_sd < 0) or not np.all(np.isfinite(proposal_sd)):
        raise ConfigurationError("proposal_sd must be finite and non-negative")
    if n_iter < 1:
        raise ConfigurationError(f"n_iter must be >= 1, got {n_iter}")
    if param_names is None:
        param_names = [f"beta_{i + 1}" for i in range(initial.shape[0])]
    if len(param_names) != initial.shape[0]:
        raise ConfigurationError(
            f"Got {len(param_names)} parameter names for {initial.shape[0]} parameters"
        )

    current = initial.copy()
    current_lp = float(log_posterior(current))
    if not np.isfinite(current_lp):
        raise ConfigurationError(
            f"log-posterior at the initial point is not finite ({current_lp})"
        )

    rng = as_generator(seed)
    n_params = current.shape[0]
    samples = np.empty((n_iter, n_params))
    lp_trace = np.empty(n_iter)
    accepted = np.zeros(n_iter, dtype=bool)
    n_accepted = 0

    for i in range(n_iter):
        proposal = current + rng.normal(0.0, proposal_sd)
        u = rng.uniform()

        if not np.array_equal(proposal, current):
            proposal_lp = float(log_posterior(proposal))
            if np.isfinite(proposal_lp):
                alpha = np.exp(min(0.0, proposal_lp - current_lp))
                if u < alpha:
                    current = proposal
                    current_lp = proposal_lp
                    accepted[i] = True
                    n_accepted += 1

        samples[i] = current
        lp_trace[i] = current_lp

        if progress_callback is not None and (i + 1) % progress_every == 0:
            progress_callback(
                iteration=i + 1,
                n_iter=n_iter,
                acceptance_rate=n_accepted / (i + 1),
                log_posterior=current_lp,
            )

    logger.info(
        f"Metropolis-Hastings finished {n_iter} iterations, "
        f"acceptance rate {n_accepted / n_iter:.3f}"
    )

    return MCMCChain(
        samples=_read_only(samples),
        accepted=_read_only(accepted),
        log_posterior=_read_only(lp_trace),
        param_names=tuple(param_names),
    )


# =============================================================================
# MULTIPLE CHAINS
# =============================================================================

def run_chains(log_posterior: Callable[[np.ndarray], float], initial, proposal_sd,
               n_iter: Optional[int] = None, n_chains: int = 4,
               seed: SeedLike = None, param_names: Optional[Sequence[str]] = None,
               n_jobs: Optional[int] = None) -> List[MCMCChain]:
    """
    Run independent chains, each with its own spawned generator.

    Args:
        initial: (n_params,) shared starting point or (n_chains, n_params)
                 per-chain starting points
        n_jobs: Worker threads; results are identical to serial execution

    Returns:
        Chains ordered by chain index
    """
    if n_chains < 1:
        raise ConfigurationError(f"n_chains must be >= 1, got {n_chains}")

    initial = np.asarray(initial, dtype=float)
    if initial.ndim == 1:
        starts = [initial] * n_chains
    elif initial.ndim == 2 and initial.shape[0] == n_chains:
        starts = list(initial)
    else:
        raise ConfigurationError(
            f"initial must have shape (n_params,) or ({n_chains}, n_params), "
            f"got {initial.shape}"
        )

    rngs = spawn_generators(seed, n_chains)

    def run(item):
        start, rng = item
        return metropolis_hastings(log_posterior, start, proposal_sd, n_iter=n_iter,
                                   seed=rng, param_names=param_names)

    return run_parallel(run, list(zip(starts, rngs)), n_jobs=n_jobs)


def chains_to_inference_data(chains: Sequence[MCMCChain], burn_in: Optional[int] = None):
    """
    Convert chains to an ArviZ ``InferenceData`` for R-hat / ESS diagnostics.

    Raises:
        ImportError: If ArviZ is not available
        ConfigurationError: If the chains differ in length or parameters
    """
    if not ARVIZ_AVAILABLE:
        raise ImportError(
            "ArviZ is required for chain diagnostics. "
            "Install with: pip install arviz"
        )
    if not chains:
        raise ConfigurationError("At least one chain is required")

    kept = [chain.discard(burn_in) for chain in chains]
    names = kept[0].param_names
    if any(c.param_names != names or len(c) != len(kept[0]) for c in kept):
        raise ConfigurationError("Chains must share parameter names and length")

    stacked = np.stack([c.samples for c in kept])        # (chain, draw, param)
    posterior = {name: stacked[:, :, j] for j, name in enumerate(names)}
    sample_stats = {'lp': np.stack([c.log_posterior for c in kept])}
    return az.from_dict(posterior=posterior, sample_stats=sample_stats)
