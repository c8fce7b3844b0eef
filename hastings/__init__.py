# -*- coding: utf-8 -*-
""" Markov chain Monte Carlo samplers and convergence diagnostics. """

import hastings.chains
import hastings.diagnostics
import hastings.errors
import hastings.integrators
import hastings.proposals
import hastings.samplers
import hastings.states
import hastings.systems
import hastings.targets
import hastings.transitions
