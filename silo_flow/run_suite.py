import argparse
import csv
import os
import subprocess
import sys

import numpy as np

from silo_flow.config import MAX_FLOW_SPEED, MIN_FLOW_SPEED


def next_iteration(root):
    #iterations are numbered from 1, one directory per suite run
    os.makedirs(root, exist_ok=True)
    taken = [int(name.split("_")[1]) for name in os.listdir(root) if name.startswith("iteration_") and name.split("_")[1].isdigit()]
    return max(taken, default=0) + 1


def flow_speeds(spacing=0.15, min_speed=MIN_FLOW_SPEED, max_speed=MAX_FLOW_SPEED):
    return [round(s, 4) for s in np.arange(min_speed, max_speed + 1e-9, spacing)]


def main(argv=None):
    parser = argparse.ArgumentParser(description="Run the headless simulator over a range of flow speeds")
    parser.add_argument("--spacing", type=float, default=0.15, help="step between flow speeds")
    parser.add_argument("--seconds", type=float, default=6.0, help="simulated time per run")
    parser.add_argument("--particles", type=int, default=5000, help="particles per lot")
    parser.add_argument("--layers", type=int, default=3, help="lots per silo")
    parser.add_argument("--output", type=str, default="csv_outputs", help="directory the iteration folders go in")
    args = parser.parse_args(argv)

    #make a new directory for the csv outputs of this iteration
    iteration = next_iteration(args.output)
    out_dir = os.path.join(args.output, "iteration_" + str(iteration))
    os.makedirs(out_dir, exist_ok=False)

    speeds = flow_speeds(args.spacing)
    with open(os.path.join(out_dir, "suite.csv"), "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["sim", "flow_speed"])
        for i, speed in enumerate(speeds, start=1):
            writer.writerow([i, speed])

    #run the simulation for each flow speed
    for i, speed in enumerate(speeds, start=1):
        print(f"sim {i}/{len(speeds)}: flow speed {speed}")
        subprocess.run(
            [sys.executable, "-m", "silo_flow.main", "--headless", "--arch", "cpu", "--silos", "1",
             "--flow-speed", str(speed), "--seconds", str(args.seconds),
             "--particles", str(args.particles), "--layers", str(args.layers),
             "--csv", os.path.join(out_dir, f"sim_{i}.csv")],
            check=True,
        )
    print("suite written to", out_dir)


if __name__ == "__main__":
    main()
