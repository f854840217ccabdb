from sensible_models import (
    OptimizerConfig,
    configure_logging,
    get_tuner,
    leave_one_out_likelihood,
    make_toy_linear_data,
)
from sensible_models.models import GaussianProcessRegression

configure_logging("INFO")

data = make_toy_linear_data(slope=5.0, intercept=1.0, sigma=0.1, n=20, seed=1)
model = GaussianProcessRegression()
print(model.pretty_string())

# Local Nelder-Mead search in log space; every candidate is scored by
# leave-one-out predictive likelihood.
tuner = get_tuner(model, leave_one_out_likelihood, data, config=OptimizerConfig(max_evaluations=100))
model.set_params(tuner.tune())

result = tuner.result
print(f"objective {result.initial_objective:.4f} -> {result.objective:.4f} "
      f"({result.n_evaluations} evaluations, {result.n_invalid} invalid)")
print(model.pretty_string())

# Same search with a global, seeded backend.
config = OptimizerConfig(backend="scipy.differential_evolution", max_evaluations=150, seed=0, options={"popsize": 5})
params = get_tuner(GaussianProcessRegression(), leave_one_out_likelihood, data, config=config).tune()
print({k: round(p.value, 4) for k, p in params.items()})
