from setuptools import setup, find_packages

package_name = 'rover_relay'

setup(
    name='rover-relay',
    version='1.0.0',
    packages=find_packages(exclude=['tests']),
    python_requires='>=3.9',
    install_requires=[
        'fastapi>=0.104.0',
        'uvicorn>=0.24.0',
        'websockets>=12.0',
        'paho-mqtt>=2.0.0',
    ],
    extras_require={
        'test': [
            'pytest',
            'httpx',
        ],
    },
    zip_safe=True,
    description='MQTT to WebSocket relay for the rover dashboard',
    license='MIT',
    entry_points={
        'console_scripts': [
            'rover-relay = rover_relay.main:main',
            'rover-relay-sim = rover_relay.simulator:main',
        ],
    },
)
