import sys
import math
import time
import signal
import argparse
import itertools
import numpy as np

characters = {
    'Full': '.,-~:;=!*#$@',
    'Half': '.~:=*#',
    'Solid': '░▒▓',
}

SCREEN_WIDTH = 40
SCREEN_HEIGHT = 40

theta_spacing = 0.07
phi_spacing = 0.02

R1 = 1.0
R2 = 2.0
K2 = 5.0
# The widest point of the torus (x = R1+R2, z = 0) lands 3/8 of the screen
# width away from the centre:
#   SCREEN_WIDTH*3/8 = K1*(R1+R2)/K2
# K2 > R1+R2 keeps every rotated z >= K2-(R1+R2) > 0.
K1 = SCREEN_WIDTH*K2*3/(8*(R1+R2))

speedA = 0.002
speedB = 0.003

CURSOR_HOME = "\x1b[H"

# at least one frame an hour keeps 1/fps sleepable
SLOWEST_FPS = 1/3600


# So we can do R| in help descriptions for line breaks while
# maintaining smart formatting indents
class SmartFormatter(argparse.HelpFormatter):
    def _split_lines(self, text, width):
        SplitLines = argparse.HelpFormatter._split_lines
        split = text.split('R|')
        if len(split) > 1:
            count = True
            to_return = []
            # Each chunk split by R| we want to reformat
            for snip in split:
                # First one will not have R| in front so format normally
                if count:
                    count = False
                    to_return.extend(SplitLines(self, snip, width))
                else:
                    to_return.extend(snip.splitlines())
            return to_return
        return SplitLines(self, text, width)


def format_options(d):
    return ''.join(f"\n'{i}'={v}" for i, v in d.items())


def non_negative(kind):
    def convert(value):
        number = kind(value)
        if isinstance(number, float) and not math.isfinite(number):
            raise argparse.ArgumentTypeError(f"expected a finite value, got {value!r}")
        if number < 0:
            raise argparse.ArgumentTypeError(f"expected a non-negative value, got {value!r}")
        return number
    convert.__name__ = kind.__name__
    return convert


def frame_rate(value):
    fps = non_negative(float)(value)
    if 0 < fps < SLOWEST_FPS:
        raise argparse.ArgumentTypeError(f"frame rate must be 0 or at least {SLOWEST_FPS:.6g}, got {value!r}")
    return fps


def build_parser():
    parser = argparse.ArgumentParser(
        prog="donut",
        description="Spinning ASCII torus for your terminal",
        formatter_class=SmartFormatter,
    )
    parser.add_argument("-c", "--style", "--characters", default='Full', choices=list(characters),
        help="Changes the characters used for the render. Default: Full"
        "R|\nOptions: {}".format(format_options(characters)))
    parser.add_argument("-f", "--fps", type=frame_rate, default=0,
        help="Caps the frame rate. Default: 0, render as fast as possible")
    parser.add_argument("-n", "--frames", type=non_negative(int), default=0,
        help="Stops after this many frames. Default: 0, run until interrupted")
    return parser


def parse_arguments(argv=None):
    return build_parser().parse_args(argv)


def precompute_angles(A, B):
    return math.cos(A), math.sin(A), math.cos(B), math.sin(B)


def sample_surface(cosA, sinA, cosB, sinB, theta_step=theta_spacing, phi_step=phi_spacing):
    # Flat arrays, theta-major. Luminance is the rotated normal dotted with
    # the light (0, 1, -1), so it lies within [-sqrt(2), sqrt(2)].
    # theta goes around the cross-sectional circle, phi around the centre
    # of revolution
    theta, phi = np.meshgrid(
        np.arange(0, 2*math.pi, theta_step),
        np.arange(0, 2*math.pi, phi_step),
        indexing='ij',
    )
    theta, phi = theta.ravel(), phi.ravel()
    sin_theta, cos_theta = np.sin(theta), np.cos(theta)
    sin_phi, cos_phi = np.sin(phi), np.cos(phi)

    # the x,y coordinate of the tube circle, before revolving
    circleX = R2 + R1*cos_theta
    circleY = R1*sin_theta

    luminance = (
        cos_phi*cos_theta*sinB
        - cosA*cos_theta*sin_phi
        - sinA*sin_theta
        + cosB*(cosA*sin_theta - cos_theta*sinA*sin_phi)
    )
    return circleX, circleY, cos_theta, sin_theta, cos_phi, sin_phi, luminance


def rotate(circleX, circleY, cos_phi, sin_phi, cosA, sinA, cosB, sinB):
    x = circleX*(cosB*cos_phi + sinA*sinB*sin_phi) - circleY*cosA*sinB
    y = circleX*(sinB*cos_phi - sinA*cosB*sin_phi) + circleY*cosA*cosB
    z = K2 + cosA*circleX*sin_phi + circleY*sinA
    return x, y, z


def project(x, y, z, width=SCREEN_WIDTH, height=SCREEN_HEIGHT):
    ooz = 1/z

    # astype(int) truncates toward zero, it does not round. y is negated
    # since rows grow downward on the display.
    x_prime = np.clip((width/2 + K1*ooz*x).astype(int), 0, width - 1)
    y_prime = np.clip((height/2 - K1*ooz*y).astype(int), 0, height - 1)
    return x_prime, y_prime, ooz


def luminance_index(luminance, chars=characters['Full']):
    # 8 steps per unit of luminance on the 12 character ramp, 8*sqrt(2) = 11.3
    scale = 8*len(chars)/len(characters['Full'])
    return min(int(luminance*scale), len(chars) - 1)


def composite(x_prime, y_prime, ooz, luminance, chars=characters['Full'],
              width=SCREEN_WIDTH, height=SCREEN_HEIGHT):
    output = np.full(width*height, ' ')
    z_buffer = np.zeros(width*height)

    # surfaces facing away from the viewer are never plotted
    lit = luminance > 0
    cells = (y_prime*width + x_prime)[lit]
    for cell, depth, light in zip(cells.tolist(), ooz[lit].tolist(), luminance[lit].tolist()):
        # larger 1/z is nearer; ties keep whatever was plotted first
        if depth > z_buffer[cell]:
            z_buffer[cell] = depth
            output[cell] = chars[luminance_index(light, chars)]
    return output, z_buffer


def rasterize(A, B, chars=characters['Full']):
    cosA, sinA, cosB, sinB = precompute_angles(A, B)
    circleX, circleY, _, _, cos_phi, sin_phi, luminance = sample_surface(cosA, sinA, cosB, sinB)
    x, y, z = rotate(circleX, circleY, cos_phi, sin_phi, cosA, sinA, cosB, sinB)

    # unreachable with the constants above
    visible = z > 0
    if not visible.all():
        x, y, z, luminance = x[visible], y[visible], z[visible], luminance[visible]

    x_prime, y_prime, ooz = project(x, y, z)
    output, _ = composite(x_prime, y_prime, ooz, luminance, chars)
    return output


def format_frame(output, width=SCREEN_WIDTH, height=SCREEN_HEIGHT):
    rows = (''.join(output[r*width:(r + 1)*width]) for r in range(height))
    return CURSOR_HOME + ''.join(row + '\n' for row in rows)


def present(frame, stream=None):
    if stream is None:
        stream = sys.stdout
    stream.write(frame)
    stream.flush()


def render_frame(A, B, chars=characters['Full'], stream=None):
    present(format_frame(rasterize(A, B, chars)), stream)


def angle_steps():
    A = B = 0.0
    while True:
        yield A, B
        A += speedA
        B += speedB


def angles_after(n):
    return next(itertools.islice(angle_steps(), n, None))


def animate(frames=0, fps=0, chars=characters['Full'], stream=None):
    interval = 1/fps if fps else 0
    steps = angle_steps()
    if frames:
        steps = itertools.islice(steps, frames)
    for A, B in steps:
        render_frame(A, B, chars, stream)
        if interval:
            time.sleep(interval)


def signal_handler(_, __):
    sys.exit()


def main(argv=None):
    args = parse_arguments(argv)
    signal.signal(signal.SIGINT, signal_handler)
    animate(frames=args.frames, fps=args.fps, chars=characters[args.style])


if __name__ == '__main__':
    main()
