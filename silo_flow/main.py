import argparse
import csv
import logging
import os

import cv2
import numpy as np
import taichi as ti

from silo_flow.config import DEFAULT_FLOW_SPEED, FLOW_SPEED_STEP, FPS, SAMPLE_INTERVAL, SiloConfig
from silo_flow.particles import SimulationMode
from silo_flow.plant import SiloPlant


logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Silo discharge viewer")
    parser.add_argument("--silos", type=int, default=3, help="number of silos side by side (1-3)")
    parser.add_argument("--layers", type=int, default=3, help="lots per silo (1-5)")
    parser.add_argument("--particles", type=int, default=5000, help="particles per lot")
    parser.add_argument("--flow-speed", type=float, default=DEFAULT_FLOW_SPEED, help="starting flow speed (0.3-1.5)")
    parser.add_argument("--seconds", type=float, default=6.0, help="simulated time to run in headless mode")
    parser.add_argument("--seed", type=int, default=0, help="seed for the initial fill")
    parser.add_argument("--headless", action="store_true", help="run without a window, discharging from the first frame")
    parser.add_argument("--csv", type=str, default=None, help="write flow rate samples to this csv file")
    parser.add_argument("--video", type=str, default=None, help="record the window to this mp4 file")
    parser.add_argument("--arch", choices=("gpu", "cpu"), default="gpu", help="taichi backend")
    return parser.parse_args(argv)


class FlowRateRecorder:
    """Samples how many particles per second leave the silos."""

    def __init__(self, csv_path=None, interval=SAMPLE_INTERVAL):
        self.csv_path = csv_path
        self.interval = interval
        self.times = []
        self.flow_rates = []
        self.count = [0, 0]     #count[0] is the number of exited particles at the previous sample, count[1] at the current one

        if csv_path is not None:
            directory = os.path.dirname(csv_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(csv_path, "w", newline="") as f:
                writer = csv.writer(f)
                writer.writerow(["Time (s)", "Flow rate (particles / s)"])

    def sample(self, t, exited):
        self.count[0] = self.count[1]
        self.count[1] = exited
        rate = (self.count[1] - self.count[0]) / self.interval
        self.times.append(t)
        self.flow_rates.append(rate)
        print(f"t = {t:.1f} s, flow rate (particles/s): {rate:.1f}")
        if self.csv_path is not None:
            with open(self.csv_path, "a", newline="") as f:
                writer = csv.writer(f)
                writer.writerow([round(t, 6), rate])
        return rate

    def reset(self):
        #the plant starts over from zero exited particles
        self.count = [0, 0]


def run_headless(plant, seconds, recorder, fps=FPS):
    dt = 1 / fps
    frames_per_sample = max(1, round(recorder.interval * fps))
    plant.set_mode(SimulationMode.DISCHARGING)
    for frame in range(1, int(round(seconds * fps)) + 1):
        plant.advance(dt)
        if frame % frames_per_sample == 0:
            recorder.sample(frame / fps, sum(plant.exited_counts()))
    return recorder.flow_rates


#captures the current frame from the Taichi window and writes it to the video
def capture_frame(window, video):
    img = window.get_image_buffer_as_numpy()
    img = (img * 255).astype(np.uint8)
    img = img[:, :, :3]
    img = img[:, :, ::-1]

    img = cv2.rotate(img, cv2.ROTATE_90_COUNTERCLOCKWISE)

    video.write(img)


def handle_keys(window, plant, recorder):
    for e in window.get_events(ti.ui.PRESS):
        if e.key == ti.ui.SPACE:
            print("mode:", plant.toggle_discharge().value)
        elif e.key == "r":
            plant.reset()
            recorder.reset()
            print("reset")
        elif e.key == ti.ui.UP:
            print("flow speed:", round(plant.set_flow_speed(plant.flow_speed + FLOW_SPEED_STEP), 2))
        elif e.key == ti.ui.DOWN:
            print("flow speed:", round(plant.set_flow_speed(plant.flow_speed - FLOW_SPEED_STEP), 2))


def run_window(plant, recorder, video_path=None, fps=FPS):
    res = (1800, 1080)
    window = ti.ui.Window(name="silo_discharge", res=res, fps_limit=fps, pos=(0, 50))
    canvas = window.get_canvas()
    scene = ti.ui.Scene()

    camera = ti.ui.Camera()
    camera.position(8.0, 3.0, 10.0)   #start back from the silos
    camera.lookat(0.0, 0.0, 0.0)

    video = None
    if video_path is not None:
        video = cv2.VideoWriter(video_path, cv2.VideoWriter_fourcc(*"mp4v"), float(fps), res)

    dt = 1 / fps
    frames_per_sample = max(1, round(recorder.interval * fps))
    frame = 0

    #main simulation loop, runs every frame
    while window.running:
        handle_keys(window, plant, recorder)
        plant.advance(dt)
        frame += 1
        if frame % frames_per_sample == 0:
            recorder.sample(frame / fps, sum(plant.exited_counts()))

        #camera
        camera.track_user_inputs(window, movement_speed=0.05, hold_key=ti.ui.RMB)
        scene.set_camera(camera)

        #lighting
        scene.point_light(pos=(5, 8, 5), color=(0.9, 0.9, 0.9))
        scene.ambient_light((0.5, 0.5, 0.5))

        #draw particles, one call per lot so each gets its color
        for unit in plant.units:
            for layer, color in enumerate(unit.layer_colors_rgb()):
                scene.particles(unit.field.layer_buffers[layer], radius=0.02, color=color)

        canvas.set_background_color((0.06, 0.06, 0.12))
        canvas.scene(scene)
        if video is not None:
            capture_frame(window, video)
        window.show()

    if video is not None:
        video.release()


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    #initialize Taichi, the JIT compiler
    ti.init(arch=ti.gpu if args.arch == "gpu" else ti.cpu)

    config = SiloConfig.stacked(args.layers, particles_per_layer=args.particles, seed=args.seed)
    plant = SiloPlant(silos=args.silos, config=config)
    plant.set_flow_speed(args.flow_speed)
    recorder = FlowRateRecorder(args.csv)

    if args.headless:
        run_headless(plant, args.seconds, recorder)
    else:
        run_window(plant, recorder, args.video)


if __name__ == "__main__":
    main()
