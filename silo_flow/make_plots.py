import argparse
import csv
import os

import matplotlib.pyplot as plt
import numpy as np
from scipy.optimize import curve_fit

from silo_flow.config import SAMPLE_INTERVAL


#discharge rate against flow speed, W = C * s^exp
def flow_law(s, exp, C):
    return C * s**exp


def load_suite(out_dir):
    #(flow speed, flow rate samples) for each sim listed in the suite manifest
    sims = []
    with open(os.path.join(out_dir, "suite.csv"), newline="") as f:
        for row in csv.DictReader(f):
            rates = np.genfromtxt(os.path.join(out_dir, f"sim_{row['sim']}.csv"), delimiter=",", skip_header=1)
            rates = np.atleast_2d(rates)[:, 1]
            sims.append((float(row["flow_speed"]), rates))
    return sims


def average_flow_rate(rates, window=14):
    #skip the first sample, the stream is still forming
    steady = np.asarray(rates)[1:1 + window]
    if steady.size == 0:
        return float(np.mean(rates))
    return float(np.mean(steady))


def fit_flow_law(speeds, avg_flow_rates):
    popt, pcov = curve_fit(flow_law, np.asarray(speeds, dtype=float), np.asarray(avg_flow_rates, dtype=float),
                           p0=(1.0, max(avg_flow_rates)), maxfev=10000)
    perr = np.sqrt(np.diag(pcov))
    return popt, perr


def main(argv=None):
    parser = argparse.ArgumentParser(description="Plot flow rates recorded by run_suite")
    parser.add_argument("iteration", help="iteration folder to analyze, e.g. iteration_1")
    parser.add_argument("--csv-root", default="csv_outputs")
    parser.add_argument("--plot-root", default="plots")
    parser.add_argument("--show", action="store_true", help="open the figures as well as saving them")
    args = parser.parse_args(argv)

    plot_dir = os.path.join(args.plot_root, args.iteration)
    os.makedirs(plot_dir, exist_ok=True)

    sims = load_suite(os.path.join(args.csv_root, args.iteration))
    speeds = np.array([s for s, _ in sims])
    avg_flow_rates = np.array([average_flow_rate(rates) for _, rates in sims])

    #perform curve fit
    popt, perr = fit_flow_law(speeds, avg_flow_rates)
    exp, C = round(popt[0], 3), round(popt[1], 3)
    print("exp = ", exp, "+/-", round(perr[0], 3))
    print("C = ", C, "+/-", round(perr[1], 3))
    xa = np.linspace(speeds.min(), speeds.max(), 200)

    #plot graph
    plt.figure()
    plt.plot(speeds, avg_flow_rates, "o")
    plt.plot(xa, flow_law(xa, *popt), "-", label=f"Trendline: ${C}s^{{{exp}}}$")
    plt.legend()
    plt.xlabel("Flow speed")
    plt.ylabel("Flow rate (particles / s)")
    plt.savefig(os.path.join(plot_dir, "W_vs_speed.png"), dpi=300, bbox_inches="tight")

    #plot second graph
    plt.figure()
    for speed, rates in sims:
        t = np.arange(1, len(rates) + 1) * SAMPLE_INTERVAL
        plt.plot(t, rates, "o", label=f"s = {speed}")
    plt.legend(fontsize="small")
    plt.xlabel("Time (s)")
    plt.ylabel("Flow rate for each flow speed (particles / s)")
    plt.savefig(os.path.join(plot_dir, "W_vs_t.png"), dpi=300, bbox_inches="tight")

    if args.show:
        plt.show()


if __name__ == "__main__":
    main()
