# Copyright 2024 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     https://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Rocket landing: reference solve followed by MPC tracking.

Usage:
    python -m altrax.examples.rocket_landing --mpc_iterations=50 --noise=0.02
"""

from absl import app
from absl import flags
from absl import logging

import jax
import numpy as np

from altrax.mpc.config import CostConfig, MPCConfig
from altrax.mpc.controller import MPCController
from altrax.mpc.disturbance import NoDisturbance, PercentNormDisturbance
from altrax.models.rocket import landing_problem
from altrax.solvers.augmented_lagrangian import ALSolver

FLAGS = flags.FLAGS

flags.DEFINE_integer('num_knots', 301, 'Knot points of the reference solve.')
flags.DEFINE_float('dt', 0.05, 'Time step in seconds.')
flags.DEFINE_integer('mpc_horizon', 21, 'Knot points of each MPC subproblem.')
flags.DEFINE_integer('mpc_iterations', None,
                     'MPC steps; defaults to num_knots - mpc_horizon.')
flags.DEFINE_integer('seed', 0, 'Seed of the disturbance.')
flags.DEFINE_float('noise', 0.0,
                   'Position disturbance as a fraction of the position norm; '
                   'the velocity disturbance is 1/20 of it.')
flags.DEFINE_integer('verbose', 1, 'Solver verbosity (0, 1 or 2).')


def main(argv):
    if len(argv) > 1:
        raise app.UsageError('Too many command-line arguments.')
    jax.config.update('jax_enable_x64', True)

    problem = landing_problem(num_knots=FLAGS.num_knots, dt=FLAGS.dt)
    solver = ALSolver(problem, verbose=FLAGS.verbose)
    status = solver.solve()
    logging.info('Reference solve: %s in %d iterations (%.3f s), cost %.4f, c_max %.2e',
                 status.name, solver.stats.iterations, solver.stats.solve_time,
                 problem.cost(), solver.max_violation())
    Z = problem.Z
    logging.info('Terminal state: %s', np.array2string(np.asarray(Z.X[-1]), precision=4))

    config = MPCConfig(
        horizon=FLAGS.mpc_horizon,
        num_iterations=FLAGS.mpc_iterations,
        seed=FLAGS.seed,
        cost=CostConfig(Q=10.0, R=1e-2, Q_terminal=100.0),
        solver={
            'constraint_tolerance': 1e-4,
            'cost_tolerance': 1e-3,
            'verbose': max(FLAGS.verbose - 1, 0),
        },
    )
    if FLAGS.noise > 0:
        disturbance = PercentNormDisturbance(FLAGS.noise, FLAGS.noise / 20)
    else:
        disturbance = NoDisturbance()

    controller = MPCController.from_reference(
        problem, Z.X, Z.U, config, disturbance)
    result = controller.run()
    logging.info('MPC: %s', result.summary())
    logging.info('Final tracking error: %.4f',
                 float(np.linalg.norm(np.asarray(result.X[-1] - Z.X[result.num_steps]))))


if __name__ == '__main__':
    app.run(main)
