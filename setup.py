"""
Setup file for the cycling speed/cadence tracker
Run: pip install -e .[test]
"""

from setuptools import find_packages, setup

setup(
    name='cadence-tracker',
    version='0.1.0',
    description='Cycling speed and cadence estimation fusing accelerometer and satellite speed',
    packages=find_packages(exclude=['tests', 'tests.*']),
    python_requires='>=3.8',
    install_requires=[
        'numpy>=1.20',
        'filterpy>=1.4.5',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
        ],
        'dev': [
            'pytest>=7.0',
            'pytest-cov',
        ],
    },
    entry_points={
        'console_scripts': [
            'cadence-replay=cadence_tracker.replay:main',
        ],
    },
)
