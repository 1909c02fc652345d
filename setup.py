from setuptools import setup, find_packages

setup(
    name='gesture-session',
    version='1.0.0',
    packages=find_packages(exclude=['tests', 'tests.*']),
    python_requires='>=3.9',
    install_requires=[
        'websockets>=13.1',
    ],
    extras_require={
        'test': ['pytest>=7.0'],
    },
    zip_safe=True,
    description='Client session for a gesture-recognition server over WebSocket',
    license='MIT',
    tests_require=['pytest'],
)
