# main.py
"""
Main entry point for the Floaty Swirl simulation.

This script orchestrates the entire simulation lifecycle:
1. Loads configuration from `config.json`.
2. Initializes the logging system.
3. Sets up the camera, the display and the particle field.
4. Runs the animation loop, one simulation step per displayed frame.
5. Handles clean shutdown.
"""
import logging
import sys
import time
from utils import setup_logging, load_config
import cProfile
import pstats
import io


def main(config_path: str = 'config.json'):
    """
    The main function to run the simulation.
    """
    # Logging is not set up yet, so we use a print for this one error.
    try:
        config = load_config(config_path)
    except Exception as e:
        print(f"FATAL: Could not load {config_path}. Error: {e}")
        return

    setup_logging(config)

    logging.info("--- Floaty Swirl Starting ---")

    sim_params = config['simulation_parameters']
    cam_params = config['camera']
    run_params = config['run_control']
    vis_params = config['visualization']

    from camera import PerspectiveCamera
    from constants import FPS
    from particle import ParticleSystem
    from simulation import Simulation
    from visualization import Visualizer

    # --- Component Initialization ---
    # 1. The visualizer determines the size of the simulation area.
    visualizer = Visualizer(color=vis_params.get('particle_color'), sim_params=sim_params)

    # 2. The camera's aspect ratio follows the simulation area.
    camera = PerspectiveCamera(
        position=cam_params['position'],
        look_at=cam_params['look_at'],
        fov=cam_params['fov'],
        aspect=visualizer.sim_width / visualizer.sim_height,
        near=cam_params['near'],
        far=cam_params['far'],
    )

    particles = ParticleSystem(sim_params)
    sim = Simulation(particles, sim_params, camera.position)

    profiler = cProfile.Profile() if run_params.get('profile') else None

    log_throttle = run_params.get('log_throttle_steps', 300)
    max_steps = run_params.get('max_steps', 0)
    max_delta_time = run_params.get('max_delta_time', 0.1)

    running = True
    frame_num = 0
    step_num = 0

    if profiler:
        profiler.enable()
    with visualizer.signals.attached(sim, camera, (visualizer.sim_width, visualizer.sim_height)):
        while running:
            # A long stall (window drag, breakpoint) must not turn into one huge step.
            delta_time = min(visualizer.clock.tick(FPS) / 1000.0, max_delta_time)
            elapsed_time = time.perf_counter()

            if sim.step(elapsed_time, delta_time):
                step_num += 1
            frame_num += 1

            if not visualizer.draw(particles, sim, camera):
                running = False

            # Hot loops must throttle logs
            if frame_num % log_throttle == 0:
                logging.info(f"Frame {frame_num}, {step_num} simulation steps")
                logging.debug(f"Step {step_num} | Average Velocity: {sim.average_speed():.4f}")

            if max_steps and step_num >= max_steps:
                logging.info(f"Reached max_steps ({max_steps}). Stopping simulation.")
                running = False
    if profiler:
        profiler.disable()

    visualizer.close()
    logging.info("Simulation loop finished.")

    if profiler:
        logging.info("--- Performance Profile ---")
        s = io.StringIO()
        # Sort by cumulative time spent in the function
        stats = pstats.Stats(profiler, stream=s).sort_stats('cumtime')
        stats.print_stats(20)
        logging.info(f"\n{s.getvalue()}")

    logging.info("--- Floaty Swirl Shutting Down ---")


def run():
    """Console entry point: optional config path as the only argument."""
    main(sys.argv[1] if len(sys.argv) > 1 else 'config.json')


if __name__ == "__main__":
    run()
