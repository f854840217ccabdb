import matplotlib.pyplot as plt
from sensible_models import OptimizerConfig, get_tuner, leave_one_out_likelihood, make_toy_linear_data
from sensible_models.models import GaussianProcessRegression
from sensible_models.plotting import plot_cross_validation

data = make_toy_linear_data(slope=1.5, intercept=0.0, sigma=0.5, n=25, seed=3)

model = GaussianProcessRegression()
model.set_params(get_tuner(model, leave_one_out_likelihood, data, config=OptimizerConfig(max_evaluations=60)).tune())

marginal = model.cross_validate().marginals(data)
fig, ax = plot_cross_validation(data, marginal, title="leave-one-out predictions")
print(f"plotted {len(data)} held-out predictions, mean std {marginal.std.mean():.3f}")
plt.show()
