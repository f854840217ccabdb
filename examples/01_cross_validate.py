import numpy as np
from sensible_models import KFold, make_toy_linear_data, negative_log_likelihood, root_mean_square_error
from sensible_models.models import GaussianProcessRegression, LeastSquaresRegression

data = make_toy_linear_data(slope=2.0, intercept=-1.0, sigma=0.3, n=30, seed=0)

for model in (GaussianProcessRegression(), LeastSquaresRegression({"sigma_noise": 0.3})):
    cv = model.cross_validate()
    rmse = cv.scores(root_mean_square_error, data, KFold(5))
    print(f"{model.name:>18}: 5-fold rmse = {np.mean(rmse):.4f}")

    # Joint scoring needs joint predictions; the least squares model only
    # implements marginals, so check before asking.
    if model.supports("joint"):
        nll = cv.scores(negative_log_likelihood, data, KFold(5))
        print(f"{'':>18}  5-fold nll  = {np.mean(nll):.4f}")

held_out = GaussianProcessRegression().cross_validate().marginals(data)
print("first held-out predictions:", np.round(held_out.mean[:3], 3), "+/-", np.round(held_out.std[:3], 3))
