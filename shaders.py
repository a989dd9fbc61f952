# =============================
# GLSL shaders
# =============================

# =============================
# Point → triangle expansion compute shader
# source SSBO (N points) → compute → sink SSBO (3N vertices)
# =============================

POINT_EXPANDER_COMPUTE_SHADER = """
#version 430

layout(local_size_x = 64) in;

// One record type for both buffers: vec3 at 0, vec3 at 16, stride 32
struct Vertex {
    vec3 position;
    vec3 color;
};

layout(std140, binding = 0) uniform Uniforms {
    mat4 projection;
    float pixel_size;
};

layout(std430, binding = 0) readonly buffer SourceVertices {
    Vertex source_vertices[];
};

layout(std430, binding = 1) writeonly buffer SinkVertices {
    Vertex sink_vertices[];
};

// Buffers may carry spare capacity, so N is passed explicitly
uniform uint num_points;

const vec2 OFFSETS[3] = vec2[3](
    vec2( 0.0,           -1.0),
    vec2(-0.86602540378,  0.5),
    vec2( 0.86602540378,  0.5)
);

void main() {
    uint idx = gl_WorkGroupID.x * gl_WorkGroupSize.x + gl_LocalInvocationID.x;
    if (idx >= num_points) return;

    Vertex point = source_vertices[idx];

    vec4 clip = projection * vec4(point.position, 1.0);
    vec3 center = clip.xyz / clip.w;

    uint base = idx * 3u;
    for (uint k = 0u; k < 3u; k++) {
        Vertex v;
        v.position = vec3(center.xy + OFFSETS[k] * pixel_size, center.z);
        v.color = point.color;
        sink_vertices[base + k] = v;
    }
}
"""

# =============================
# Triangle rasterizer — positions are already NDC
# =============================

TRIANGLE_VERTEX_SHADER = """
#version 330

layout(location = 0) in vec3 in_position;
layout(location = 1) in vec3 in_color;

out vec3 v_color;

void main() {
    gl_Position = vec4(in_position, 1.0);
    v_color = in_color;
}
"""

TRIANGLE_FRAGMENT_SHADER = """
#version 330

in vec3 v_color;
out vec4 fragColor;

void main() {
    fragColor = vec4(v_color, 1.0);
}
"""

# =============================
# Face wireframe — world-space vertices, projected here
# =============================

FACE_VERTEX_SHADER = """
#version 330

layout(std140) uniform Uniforms {
    mat4 projection;
    float pixel_size;
};

in vec3 in_position;
in vec3 in_color;

out vec3 v_color;

void main() {
    gl_Position = projection * vec4(in_position, 1.0);
    v_color = in_color;
}
"""

FACE_FRAGMENT_SHADER = TRIANGLE_FRAGMENT_SHADER
