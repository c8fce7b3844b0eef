import setuptools

setuptools.setup(
    name='hastings',
    version='0.1.0',
    description=(
        'Metropolis-Hastings and Hamiltonian Monte Carlo samplers with '
        'convergence diagnostics'
    ),
    long_description=(
        'Hastings is a Python package providing implementations of Markov '
        'chain Monte Carlo (MCMC) methods for drawing samples from '
        'unnormalized target distributions: random-walk and general '
        'Metropolis-Hastings samplers, Hamiltonian Monte Carlo with a '
        'leapfrog integrator, independent multi-chain sampling and the '
        'Gelman-Rubin convergence diagnostic.'
    ),
    packages=['hastings'],
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Programming Language :: Python :: 3',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
        'Topic :: Scientific/Engineering',
        'Intended Audience :: Science/Research',
        'Intended Audience :: Developers'
    ],
    keywords='inference sampling MCMC HMC Metropolis-Hastings',
    license='MIT',
    install_requires=['numpy>=1.17', 'scipy>=1.1'],
    python_requires='>=3.8',
    extras_require={
        'parallel': ['multiprocess>=0.70'],
        'test': ['pytest>=6'],
    }
)
